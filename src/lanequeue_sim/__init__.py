"""lanequeue-sim - Interactive simulator for lanequeue workloads."""

#!/usr/bin/env python3
"""
SQLite Writes

Funnels concurrent writes through one lane per table so each table sees
its inserts and updates in arrival order, while different tables proceed
independently.

Demonstrates:
- Decorator registration with @queue.processor
- Sync results and processor failures (ProcessorError)
- on_complete / on_failure hooks
- clear() as an administrative drop of pending writes
"""

import asyncio
import logging

import aiosqlite

from lanequeue import ProcessorError, TaskQueue

DB_PATH = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS visits (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    note TEXT
);
CREATE TABLE IF NOT EXISTS counters (
    name TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
"""


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    async def run():
        queue = TaskQueue()

        async with aiosqlite.connect(DB_PATH) as conn:
            await conn.executescript(SCHEMA)
            await conn.commit()

            @queue.processor("table:visits", processing_delay_ms=0, timeout_ms=2000)
            async def write_visit(payload):
                cursor = await conn.execute(
                    "INSERT INTO visits (user_id, note) VALUES (?, ?)",
                    (payload["user_id"], payload.get("note")),
                )
                await conn.commit()
                return {"inserted_id": cursor.lastrowid}

            @queue.processor("table:counters", processing_delay_ms=0, timeout_ms=2000)
            async def bump_counter(payload):
                if payload["by"] < 0:
                    raise ValueError("counters only go up")
                await conn.execute(
                    "INSERT INTO counters (name, value) VALUES (?, ?) "
                    "ON CONFLICT(name) DO UPDATE SET value = value + excluded.value",
                    (payload["name"], payload["by"]),
                )
                await conn.commit()
                async with conn.execute(
                    "SELECT value FROM counters WHERE name = ?", (payload["name"],)
                ) as cursor:
                    row = await cursor.fetchone()
                return {"value": row[0]}

            @queue.on_complete
            def on_complete(item, result, duration):
                print(f"  ✓ {item.key} {result} ({duration * 1000:.1f}ms)")

            @queue.on_failure
            def on_failure(item, error):
                print(f"  ✗ {item.key} {error}")

            futures = [queue.submit("table:visits", {"user_id": f"u{i}", "note": f"visit {i}"}) for i in range(5)]
            futures += [queue.submit("table:counters", {"name": "hits", "by": n}) for n in (1, 2, -1, 3)]

            results = await asyncio.gather(*futures, return_exceptions=True)
            rejected = [r for r in results if isinstance(r, ProcessorError)]
            print(f"\n{len(results) - len(rejected)} writes applied, {len(rejected)} rejected")

            # Queue more work, then drop what has not started yet
            for i in range(3):
                queue.submit("table:visits", {"user_id": "late", "note": f"dropped {i}"})
            dropped = queue.clear("table:visits")
            print(f"Dropped {dropped} pending write(s)")

            await queue.join()

            async with conn.execute("SELECT COUNT(*) FROM visits") as cursor:
                (count,) = await cursor.fetchone()
            print(f"visits rows: {count}")
            print(queue.status("table:counters"))

    asyncio.run(run())


if __name__ == "__main__":
    main()

"""
Terminal front end for picking a campus.

Walks the user through city -> campus, stores the choice in the local
key-value file and opens the campus dashboard:

    python -m cli.homepage --city "Kuala Lumpur"
"""

from __future__ import annotations

import argparse
import asyncio
import os
from typing import Callable, List, Optional

from catalog.client import CatalogClient
from catalog.selection import CampusSelector, SelectorState
from cli.router import resolve_route
from storage.factory import create_store
from storage.local_storage import JsonFileKeyValueStore, KeyValueStore
from telemetry.logging_utils import configure_logging

Prompt = Callable[[str], str]


def _render_cities(cities: List[str]) -> None:
    print("Select Your Campus")
    print("Choose your city:")
    for idx, city in enumerate(cities, start=1):
        print(f"  {idx}) {city}")


def _render_campuses(selector: CampusSelector) -> None:
    print(f"Campuses in {selector.selected_city}:")
    for idx, campus in enumerate(selector.campuses, start=1):
        print(f"  {idx}) {campus.name} - {campus.address}")
    print("  b) Back to Cities")


def _pick(choice: str, count: int) -> Optional[int]:
    if not choice.isdigit():
        return None
    index = int(choice) - 1
    return index if 0 <= index < count else None


async def _ask(prompt: Prompt, message: str) -> str:
    # input() blocks; keep it off the event loop.
    return await asyncio.to_thread(prompt, message)


async def drive_selector(selector: CampusSelector, prompt: Prompt = input, initial_city: Optional[str] = None) -> bool:
    """Run the picker until a campus is chosen (True) or the user quits (False)."""
    await selector.start()
    pending_city = (initial_city or "").strip()
    while True:
        state = selector.state
        if state is SelectorState.CAMPUS_SELECTED:
            return True
        if state is SelectorState.LOAD_ERROR:
            print(f"Error: {selector.error}")
            choice = (await _ask(prompt, "Type r to try again or q to quit: ")).strip().lower()
            if choice == "q":
                return False
            if choice == "r":
                await selector.reload()
            continue
        if state is SelectorState.CITIES_READY:
            cities = selector.sorted_cities
            if pending_city:
                match = next((c for c in cities if c.lower() == pending_city.lower()), None)
                pending_city = ""
                if match:
                    await selector.choose_city(match)
                    continue
                print("That city has no campuses listed; pick one below.")
            if not cities:
                print("No cities are available yet.")
                choice = (await _ask(prompt, "Type r to refresh or q to quit: ")).strip().lower()
                if choice == "q":
                    return False
                if choice == "r":
                    await selector.reload()
                continue
            _render_cities(cities)
            choice = (await _ask(prompt, "Enter a number (q to quit): ")).strip().lower()
            if choice == "q":
                return False
            index = _pick(choice, len(cities))
            if index is None:
                print("Invalid choice. Please type one of the listed numbers.")
                continue
            await selector.choose_city(cities[index])
            continue
        if state is SelectorState.CAMPUSES_READY:
            _render_campuses(selector)
            choice = (await _ask(prompt, "Enter a number, or b to go back: ")).strip().lower()
            if choice == "b":
                selector.back()
                continue
            index = _pick(choice, len(selector.campuses))
            if index is None:
                print("Invalid choice. Please type one of the listed numbers.")
                continue
            selector.select_campus(selector.campuses[index])
            continue
        # Loads are awaited above, so the flow never rests in a loading state here.
        raise RuntimeError(f"Selector stuck in {state.value}")


def run_homepage_cli(
    initial_city: Optional[str] = None,
    *,
    catalog: Optional[CatalogClient] = None,
    storage: Optional[KeyValueStore] = None,
    prompt: Prompt = input,
) -> Optional[str]:
    """
    Entry point for the campus picker.

    Args:
        initial_city: optional city name; when it matches a loaded city the
            picker skips straight to that city's campuses.

    Returns the dashboard path that was opened, or None when the user quit.
    """
    catalog = catalog or CatalogClient(create_store())
    storage = storage or JsonFileKeyValueStore()
    visited: List[str] = []
    selector = CampusSelector(catalog, storage, navigate=visited.append)
    chosen = asyncio.run(drive_selector(selector, prompt=prompt, initial_city=initial_city))
    if not chosen or not visited:
        return None
    path = visited[-1]
    resolve_route(path)(catalog)
    return path


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Campus services picker")
    parser.add_argument("--city", "-c", metavar="NAME", help="Skip the city menu and open this city's campuses.")
    parser.add_argument("--storage", metavar="PATH", help="Local storage file (default: $CAMPUS_LOCAL_STORAGE).")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Root log level (default: $LOG_LEVEL or WARNING, so JSON logs stay out of the prompts).",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    configure_logging(args.log_level, force=True)
    run_homepage_cli(args.city, storage=JsonFileKeyValueStore(args.storage))


if __name__ == "__main__":
    main()

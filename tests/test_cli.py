import asyncio
import json
import threading

import pytest

from catalog.errors import QueryResult, RemoteError
from catalog.selection import SELECTED_CAMPUS_KEY, CampusSelector
from cli.dashboard import render_dashboard
from cli.homepage import drive_selector, run_homepage_cli
from cli.router import resolve_route


def _scripted(*answers):
    replies = iter(answers)
    return lambda message: next(replies)


def test_pick_city_then_campus(catalog_client, kv_store, capsys):
    path = run_homepage_cli(catalog=catalog_client, storage=kv_store, prompt=_scripted("2", "1"))
    assert path == "/dashboard/7"
    assert json.loads(kv_store.get(SELECTED_CAMPUS_KEY))["name"] == "Gelugor Campus"
    out = capsys.readouterr().out
    assert "Campuses in Penang:" in out
    assert "Campus #7" in out
    assert "Gelugor Lodge" in out


def test_initial_city_skips_city_menu(catalog_client, kv_store, capsys):
    path = run_homepage_cli("kuala lumpur", catalog=catalog_client, storage=kv_store, prompt=_scripted("2"))
    assert path == "/dashboard/2"
    assert "Choose your city:" not in capsys.readouterr().out


def test_back_and_invalid_input(catalog_client, kv_store, capsys):
    path = run_homepage_cli(catalog=catalog_client, storage=kv_store, prompt=_scripted("1", "b", "9", "2", "1"))
    assert path == "/dashboard/7"
    assert "Invalid choice" in capsys.readouterr().out


def test_quit_leaves_storage_untouched(catalog_client, kv_store):
    assert run_homepage_cli(catalog=catalog_client, storage=kv_store, prompt=_scripted("q")) is None
    assert kv_store.get(SELECTED_CAMPUS_KEY) is None


def test_retry_after_load_error(catalog_client, kv_store, capsys):
    class FlakySource:
        def __init__(self):
            self.failures = 1

        def fetch_campuses(self):
            if self.failures:
                self.failures -= 1
                return QueryResult.failure(RemoteError("timeout", code="network"))
            return catalog_client.fetch_campuses()

        def fetch_campuses_by_city(self, city):
            return catalog_client.fetch_campuses_by_city(city)

    visited = []
    selector = CampusSelector(FlakySource(), kv_store, navigate=visited.append)
    chosen = asyncio.run(drive_selector(selector, prompt=_scripted("r", "1", "1")))
    assert chosen is True
    assert visited == ["/dashboard/1"]
    assert "Failed to load cities" in capsys.readouterr().out


def test_resolve_route():
    handler = resolve_route("/dashboard/7/")
    assert handler.keywords == {"campus_id": "7"}
    with pytest.raises(ValueError):
        resolve_route("/settings")


def test_dashboard_lists_campus_services(catalog_client):
    lines = []
    render_dashboard(catalog_client, 1, out=lines.append)
    text = "\n".join(lines)
    assert "Razak Residence (mixed) from 900/month, 2 room type(s)" in text
    assert "Nasi Kandar Corner: malaysian, low prices" in text
    assert "Klinik Pelajar: 1 doctor(s), 7 open slot(s)" in text
    assert "Razak Medical Centre: 0 doctor(s), 0 open slot(s), 24h emergency" in text


def test_prompts_run_off_the_event_loop_thread(catalog_client, kv_store):
    threads = []
    answers = iter(["2", "1"])

    def prompt(message):
        threads.append(threading.current_thread())
        return next(answers)

    assert run_homepage_cli(catalog=catalog_client, storage=kv_store, prompt=prompt) == "/dashboard/7"
    assert threads and all(t is not threading.main_thread() for t in threads)

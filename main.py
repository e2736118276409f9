#!/usr/bin/env python3
"""
Tab Session Manager - Main Entry Point

Interactive terminal front-end for saved sessions: list, restore into a
Playwright-launched browser, rename, delete, import and export.
"""

import asyncio
import os
from pathlib import Path

from InquirerPy import inquirer
from InquirerPy.base.control import Choice
from InquirerPy.validator import PathValidator
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from yaspin import yaspin

from browser_provider import PlaywrightBrowserApi
from engine_config import EngineConfig
from error_handling import ExtensionError
from export_bundler import ExportBundler
from session_storage import JsonFileStorage
from session_store import SessionStore, export_filename, session_stats
from tab_management.tab_actions import IntentKind, TabIntent
from tab_management.tab_manager import TabManager
from terminal import term, banner, banner_lines, clear_screen, clear_screen_preserve_banner
from text_utils import TextUtils
from utils.event_logger import EventLogger, set_event_logger

console = Console()


def build_config() -> EngineConfig:
    config = EngineConfig.debug() if os.environ.get("TAB_SESSIONS_DEBUG") else EngineConfig.minimal()
    path = os.environ.get("TAB_SESSIONS_PATH")
    if path:
        config.storage.sessions_path = Path(path)
    return config


def wait_for_key():
    print("Press any key to continue...")
    with term.cbreak(), term.hidden_cursor():
        term.inkey()


def show_sessions(store: SessionStore):
    """Print saved sessions and their stats"""
    sessions = store.sessions
    if not sessions:
        rprint("[dim]No saved sessions.[/dim]\n")
        return

    table = Table(title="Saved Sessions")
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Tabs", justify="right")
    table.add_column("Saved")
    for i, session in enumerate(sessions):
        table.add_row(
            str(i + 1),
            TextUtils.truncate(session.name, 40),
            str(len(session.tabs)),
            TextUtils.time_ago(session.date),
        )
    console.print(table)

    summary = session_stats(sessions)
    rprint(f"[dim]{summary.count} sessions, {summary.total_tabs} tabs, "
           f"{summary.average_tabs} tabs per session on average[/dim]\n")


def pick_session(store: SessionStore, message: str):
    if not store.sessions:
        rprint("[yellow]No saved sessions.[/yellow]")
        return None
    choices = [
        Choice(value=i, name=f"{session.name} ({len(session.tabs)} tabs)")
        for i, session in enumerate(store.sessions)
    ]
    choices.append(Choice(value=None, name="Back"))
    return inquirer.select(message=message, choices=choices).execute()


async def restore_session(config: EngineConfig, store: SessionStore, index: int):
    """Launch a browser, restore one session and keep it open until the user is done"""
    browser = PlaywrightBrowserApi(config.browser)
    manager = TabManager(browser, store, config=config)
    try:
        with yaspin(text="Starting browser...", color="cyan") as spinner:
            await browser.start()
            spinner.text = "Restoring session..."
            await manager.start()
            result = await manager.dispatch(TabIntent(kind=IntentKind.RESTORE_SESSION, index=index))
            spinner.hide()

        if result:
            rprint(f"[green]{result.message}[/green]")
            for url in result.data.skipped:
                rprint(f"  [dim]skipped: {url}[/dim]")
        else:
            rprint(f"[red]{result.message}[/red]")

        await asyncio.to_thread(inquirer.confirm(message="Close the browser?", default=True).execute)
    finally:
        await manager.stop()
        await browser.close()


def rename_session(store: SessionStore, index: int):
    name = inquirer.text(message="New name:", default=store.sessions[index].name).execute()
    session = asyncio.run(store.rename(index, name))
    rprint(f"[green]Renamed session to \"{session.name}\"[/green]")


def delete_session(store: SessionStore, index: int):
    name = store.sessions[index].name
    confirm = inquirer.confirm(message=f"Delete \"{name}\"?", default=False).execute()
    if not confirm:
        rprint("[green]Deletion cancelled.[/green]")
        return
    asyncio.run(store.delete(index))
    rprint(f"[green]Deleted session \"{name}\"[/green]")


def import_sessions(store: SessionStore):
    path = inquirer.filepath(
        message="JSON file to import:",
        validate=PathValidator(is_file=True, message="Input is not a file"),
    ).execute()
    result = asyncio.run(store.import_sessions(Path(path).read_text(encoding="utf-8")))
    if result.added_count:
        rprint(f"[green]Imported {result.added_count} sessions[/green]")
    else:
        rprint("[yellow]No new sessions to import[/yellow]")


def export_sessions(store: SessionStore):
    directory = inquirer.filepath(
        message="Directory to export to:",
        default=str(Path.cwd()),
        validate=PathValidator(is_dir=True, message="Input is not a directory"),
        only_directories=True,
    ).execute()
    bundle = ExportBundler.json_bundle(store.export(), export_filename())
    target = bundle.write_to(directory)
    rprint(f"[green]Sessions exported to {target}[/green]")


def main():
    """Main function"""
    config = build_config()
    set_event_logger(EventLogger(debug_mode=config.logging.debug_mode))
    store = SessionStore(
        JsonFileStorage(config.storage.sessions_path),
        key=config.storage.sessions_key,
        exported_by=config.export.exported_by,
    )
    asyncio.run(store.load())

    clear_screen()
    print(banner)

    while True:
        rprint("[bold]Main Menu\n")
        choice = inquirer.select(
            message="What would you like to do?",
            choices=[
                Choice(value="list", name="List saved sessions"),
                Choice(value="restore", name="Restore a session"),
                Choice(value="rename", name="Rename a session"),
                Choice(value="delete", name="Delete a session"),
                Choice(value="import", name="Import sessions from a JSON file"),
                Choice(value="export", name="Export all sessions to a JSON file"),
                Choice(value="exit", name="Exit"),
            ],
            default="list",
        ).execute()

        clear_screen_preserve_banner(banner_lines)

        if choice == "exit":
            print("👋 Goodbye!\n")
            return

        try:
            if choice == "list":
                show_sessions(store)
            elif choice == "import":
                import_sessions(store)
            elif choice == "export":
                export_sessions(store)
            else:
                index = pick_session(store, f"Which session do you want to {choice}?")
                if index is not None:
                    if choice == "restore":
                        asyncio.run(restore_session(config, store, index))
                    elif choice == "rename":
                        rename_session(store, index)
                    else:
                        delete_session(store, index)
        except ExtensionError as e:
            rprint(f"[red]❌ {e.message}[/red]")

        wait_for_key()
        clear_screen_preserve_banner(banner_lines)


if __name__ == '__main__':
    main()

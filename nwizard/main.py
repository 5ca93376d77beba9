import argparse
import sys
from pathlib import Path

from nwizard.__version__ import __version__
from nwizard.app.context import SessionContext
from nwizard.app.orchestrator import SessionOrchestrator
from nwizard.app.signals import install_signal_handlers, restore_signal_handlers
from nwizard.config.menu_loader import load_menu_config
from nwizard.config.settings import SIGNAL_EXIT_BASE, resolve_paths
from nwizard.exceptions import AuthenticationError, ConfigError, PersistenceError
from nwizard.execution.process_runner import ProcessRunner
from nwizard.execution.transcript import SessionTranscript
from nwizard.logging import LoggerFactory, operation_context, setup_logging
from nwizard.menu.navigator import MenuNavigator
from nwizard.privilege.sudo import CredentialSupervisor
from nwizard.storage.selections import PersistedSelections, SelectionStore
from nwizard.ui.terminal import check_terminal, restore_terminal, run_curses

log = LoggerFactory.for_system()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nwizard", description="Interactive installer and configuration menu"
    )
    parser.add_argument("-c", "--config", metavar="PATH", help="Menu file (default: ~/.config/nwizard/menu.toml)")
    parser.add_argument(
        "--install-config-dir",
        metavar="DIR",
        help="Directory holding the saved selections (default: next to the menu file)",
    )
    parser.add_argument("-n", "--no-sudo", action="store_true", help="Do not acquire or renew sudo")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Enable trace logging (very verbose)")
    parser.add_argument(
        "--config-options",
        metavar="PATH",
        help="Print saved selections from PATH as shell export lines and exit",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _double_quote(value: str) -> str:
    for char in ("\\", '"', "$", "`"):
        value = value.replace(char, f"\\{char}")
    return f'"{value}"'


def export_config_options(path: str) -> int:
    """Print ``export NWIZ_KEY="value"`` lines for ``eval`` in shell scripts."""
    store = SelectionStore(Path(path).expanduser())
    if not store.exists():
        print(f"Error: selections file not found: {store.path}", file=sys.stderr)
        return 1
    for name, value in store.load().as_environment().items():
        print(f"export {name}={_double_quote(value)}")
    return 0


def bootstrap_selections(navigator: MenuNavigator, store: SelectionStore) -> PersistedSelections:
    """Apply saved selections, then rewrite the file from the live menu state."""
    with operation_context("bootstrap", path=str(store.path)) as op_log:
        saved = store.load()
        applied = saved.apply_to(navigator)
        op_log.debug(f"Applied {applied} saved selection(s)")
        current = PersistedSelections.from_navigator(navigator)
        try:
            store.save(current)
        except PersistenceError as error:
            op_log.error(str(error))
        return current


def _start_transcript(logfile: str):
    transcript = SessionTranscript(Path(logfile).expanduser())
    try:
        transcript.start()
    except OSError as error:
        log.warning(f"Session transcript disabled, cannot open {logfile}: {error}")
        return None
    return transcript


def main(argv=None, *, run_ui=run_curses) -> int:
    args = build_parser().parse_args(argv)

    if args.config_options:
        setup_logging(debug=args.debug, trace=args.trace)
        return export_config_options(args.config_options)

    # curses owns the terminal for the whole session, so no stderr sink.
    setup_logging(debug=args.debug, trace=args.trace, console=False)
    log.info(f"nwizard {__version__} starting")

    paths = resolve_paths(args.config, args.install_config_dir)
    try:
        config = load_menu_config(paths.menu_path)
    except ConfigError as error:
        log.error(str(error))
        print(f"Error: {error}", file=sys.stderr)
        return 1

    ok, reason = check_terminal()
    if not ok:
        print(f"Terminal check failed: {reason}", file=sys.stderr)
        return 1

    supervisor = CredentialSupervisor(config.renewal_period, enabled=not args.no_sudo)
    try:
        supervisor.ensure_authenticated()
    except AuthenticationError as error:
        log.error(str(error))
        return 1

    navigator = MenuNavigator(config)
    store = SelectionStore(paths.selections_path)
    bootstrap_selections(navigator, store)

    transcript = _start_transcript(config.logfile) if config.logfile else None
    context = SessionContext(
        config=config,
        navigator=navigator,
        runner=ProcessRunner(shell=config.shell),
        supervisor=supervisor,
        store=store,
        transcript=transcript,
        restore_terminal=restore_terminal,
    )
    orchestrator = SessionOrchestrator(context)

    supervisor.start_background_renewal()
    previous_handlers = install_signal_handlers(orchestrator)
    try:
        run_ui(orchestrator)
    finally:
        restore_signal_handlers(previous_handlers)
        orchestrator.shutdown()
        supervisor.join(timeout=1.0)
        if transcript is not None:
            transcript.close()

    if context.exit_signal is not None:
        log.info(f"Exiting after signal {context.exit_signal}")
        return SIGNAL_EXIT_BASE + context.exit_signal
    log.info("nwizard exited normally")
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Entry point for the pasvftp client.

Without flags, starts the interactive shell. With ``--ui``, replaces the
process with the Streamlit web client.
"""

import argparse
import os
import shutil
import subprocess
import sys
import logging

from pasvftp import __version__
from pasvftp.config import ClientConfig, configure_logging

logger = logging.getLogger("pasvftp")

APP_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "ui", "app.py")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pasvftp", description="Passive-mode FTP client")
    parser.add_argument("host", nargs="?", help="Server to connect to (default: $PASVFTP_HOST or prompt)")
    parser.add_argument("-p", "--port", type=int, help="Control port (default: $PASVFTP_PORT or 21)")
    parser.add_argument("-u", "--user", help="Username to offer at the prompt")
    parser.add_argument("-t", "--timeout", type=float, help="Socket timeout in seconds (default: none)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG logging")
    parser.add_argument("--ui", action="store_true", help="Start the Streamlit web client instead of the shell")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args) -> ClientConfig:
    config = ClientConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.user:
        config.user = args.user
    if args.timeout is not None:
        config.timeout = args.timeout if args.timeout > 0 else None
    if args.verbose:
        config.log_level = "DEBUG" if args.verbose > 1 else "INFO"
    return config


def start_streamlit_client(config: ClientConfig):
    """
    Start the Streamlit UI on ``config.ui_host:config.ui_port``.

    Connection defaults are passed to the app through the environment.
    """
    logger.info("Starting Streamlit client UI on %s:%s...", config.ui_host, config.ui_port)

    if shutil.which("streamlit") is None:
        logger.error("streamlit executable not found; install it with: pip install streamlit")
        return 1

    for name, value in (("PASVFTP_HOST", config.host), ("PASVFTP_PORT", config.port),
                        ("PASVFTP_USER", config.user), ("PASVFTP_TIMEOUT", config.timeout),
                        ("PASVFTP_LOG_LEVEL", config.log_level)):
        if value is not None:
            os.environ[name] = str(value)
    os.environ['STREAMLIT_TELEMETRY_ENABLED'] = 'false'

    cmd = [
        'streamlit',
        'run',
        APP_PATH,
        f'--server.port={config.ui_port}',
        f'--server.address={config.ui_host}',
        '--client.showErrorDetails=true'
    ]

    # Replace the current process with the Streamlit process for proper signal handling
    try:
        os.execvp(cmd[0], cmd)
    except OSError as e:
        logger.error("Failed to exec Streamlit: %s", e)
        try:
            subprocess.run(cmd, check=True)
        except subprocess.CalledProcessError as e2:
            logger.error("Streamlit exited with error code %s", e2.returncode)
            return e2.returncode
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args)
    configure_logging(config.log_level)
    logger.debug("Loaded %r", config)

    if args.ui:
        return start_streamlit_client(config)

    from pasvftp.ui.shell import run_shell
    return run_shell(config)


if __name__ == '__main__':
    sys.exit(main())

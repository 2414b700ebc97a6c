"""
=============================================================================
COMMAND-LINE INTERFACES
=============================================================================

    pcc-server <port>                       python -m pccserver <port>
    pcc-client <ip> <port> <file path>

Exit status:
    0   normal shutdown / request answered
    1   bad arguments, startup failure, or client transport failure

argparse exits with status 2 on bad arguments; both commands use the
subclass below so every usage error exits with 1 instead.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .client import PCCClient
from .config import ClientConfig, ServerConfig, LOG_LEVELS, LOG_FORMATS
from .errors import PCCError, UsageError
from .server import PCCServer


EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ArgumentParser(argparse.ArgumentParser):
    """argparse with usage errors mapped to exit status 1."""
    
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port number: {value}")
    if not 0 <= port < 65536:
        raise argparse.ArgumentTypeError(f"Invalid port number: {value}")
    return port


def build_server_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="pcc-server",
        description="Count printable characters sent over TCP and report totals on SIGINT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pcc-server 5555                      # Listen on all interfaces
  pcc-server 5555 --host 127.0.0.1     # Localhost only
  pcc-server 5555 --log-format json    # Structured connection logs
        """,
    )
    
    parser.add_argument("port", type=_port, help="Port to listen on")
    
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: $PCC_HOST or 0.0.0.0)",
    )
    
    parser.add_argument(
        "--backlog", "-b",
        type=int,
        default=None,
        help="Pending connection queue size (default: $PCC_BACKLOG or 10)",
    )
    
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: $PCC_LOG_LEVEL or INFO)",
    )
    
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Connection log format (default: $PCC_LOG_FORMAT or text)",
    )
    
    parser.add_argument(
        "--no-drain",
        action="store_true",
        help="Drop, instead of answering, a request interrupted by shutdown",
    )
    
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"pccserver {__version__}",
    )
    
    return parser


def build_client_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="pcc-client",
        description="Send a file to a counting server and print its printable character count",
    )
    parser.add_argument("ip", help="Server IP address")
    parser.add_argument("port", type=_port, help="Server port")
    parser.add_argument("path", help="File whose contents are sent")
    return parser


def _server_config(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, overridden by whatever was given on the command line."""
    config = ServerConfig.from_env()
    config.port = args.port
    config.drain_on_interrupt = not args.no_drain
    
    for name in ("host", "backlog", "log_level", "log_format"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    
    return config


def server_main(argv: Optional[List[str]] = None) -> int:
    """Run the server until SIGINT/SIGTERM. Returns the exit status."""
    args = build_server_parser().parse_args(argv)
    
    try:
        try:
            server = PCCServer(_server_config(args))
        except ValueError as e:
            raise UsageError(str(e)) from e
        server.run()
    except (PCCError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    
    return EXIT_SUCCESS


def client_main(argv: Optional[List[str]] = None) -> int:
    """Send one file and print the count. Returns the exit status."""
    args = build_client_parser().parse_args(argv)
    
    try:
        try:
            client = PCCClient(ClientConfig(host=args.ip, port=args.port))
        except ValueError as e:
            raise UsageError(str(e)) from e
        printable = client.count_file(args.path)
    except (PCCError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    
    print(f"# of printable characters: {printable}")
    return EXIT_SUCCESS


def run_server():
    """Console-script entry point for pcc-server."""
    sys.exit(server_main())


def run_client():
    """Console-script entry point for pcc-client."""
    sys.exit(client_main())

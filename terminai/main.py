"""
Terminai - Main entry point.
Starts the Terminai shell.
"""

import os
import sys
import argparse

from terminai import __version__
from terminai.config import Config
from terminai.output import print_error, print_success, print_dim, print_debug
from terminai.shell import TerminaiShell


def main():
    """Main entry point for Terminai."""
    parser = argparse.ArgumentParser(
        description="Terminai - AI-enhanced shell wrapper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  terminai                         Start Terminai
  terminai --config-dir ~/my-cfg   Use custom config directory
  terminai --shell /bin/zsh        Run commands through zsh
  terminai --no-ai                 Plain shell wrapper, no suggestions

Once in the shell:
  ls -la                    Runs as usual
  list big files            Fails, then an AI suggestion is prefilled
  Ctrl+C                    Interrupt a command / drop a suggestion / quit
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Terminai {__version__}'
    )

    parser.add_argument(
        '--config-dir',
        type=str,
        help='Custom configuration directory (default: ~/.terminai)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    parser.add_argument(
        '--shell',
        type=str,
        help='Shell used to run commands'
    )

    parser.add_argument(
        '--no-ai',
        action='store_true',
        help='Disable AI command suggestions'
    )

    parser.add_argument(
        '--reset-key',
        action='store_true',
        help='Forget the saved API key and exit'
    )

    args = parser.parse_args()

    if args.debug:
        os.environ['DEBUG'] = '1'

    try:
        config = Config(config_dir=args.config_dir)

        if args.reset_key:
            if config.clear_saved_api_key():
                print_success("[OK] Saved API key cleared")
            else:
                print_dim("No saved API key")
            return

        if args.shell:
            config.shell_override = args.shell

        shell = TerminaiShell(config, use_ai=not args.no_ai)
        shell.run()

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
        sys.exit(0)
    except Exception as e:
        print_error(f"\n[Fatal Error] {e}")
        print_debug("Startup failed", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()

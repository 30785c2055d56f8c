"""Package entry point for ``python -m chunked_transcriber``.

HOW: ``--serve`` starts the HTTP API with uvicorn. Otherwise, delegates
to the CLI's main() function.
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from chunked_transcriber.server.app import run_api
        run_api()
    else:
        from chunked_transcriber.cli import main
        main()

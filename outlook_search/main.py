"""Entry point: cli | oneshot | sign-in | sign-out | status."""

import asyncio
import sys

USAGE = "Usage: python -m outlook_search.main [cli [--tag TAG]|oneshot TAG [TEXT...]|sign-in|sign-out|status]"


def main():
    mode = "cli"
    if len(sys.argv) > 1:
        mode = sys.argv[1].lower()

    if mode == "cli":
        from outlook_search.interfaces.cli import run_cli

        tag = "outlook"
        if "--tag" in sys.argv:
            idx = sys.argv.index("--tag")
            if idx + 1 < len(sys.argv):
                tag = sys.argv[idx + 1].lower()
        try:
            asyncio.run(run_cli(initial_tag=tag))
        except KeyboardInterrupt:
            pass

    elif mode == "oneshot":
        from outlook_search.interfaces.oneshot import main as run_oneshot_main

        if len(sys.argv) < 3:
            print(USAGE)
            sys.exit(2)
        tag = sys.argv[2]
        text = " ".join(sys.argv[3:]).strip()
        if not text and not sys.stdin.isatty():
            text = sys.stdin.read().strip()
        sys.exit(run_oneshot_main(tag=tag, text=text))

    elif mode == "sign-in":
        from outlook_search.interfaces.oneshot import run_sign_in

        sys.exit(asyncio.run(run_sign_in()))

    elif mode == "sign-out":
        from outlook_search.interfaces.oneshot import run_sign_out

        sys.exit(asyncio.run(run_sign_out()))

    elif mode == "status":
        from outlook_search.interfaces.oneshot import run_status

        sys.exit(asyncio.run(run_status()))

    else:
        print(f"Unknown mode: {mode}")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()

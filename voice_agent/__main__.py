"""Package entry point for ``python -m voice_agent``.

WHY: Operators run ``python -m voice_agent serve`` to start the HTTP
service or ``python -m voice_agent token ...`` to mint a credential by
hand. Python's ``-m`` flag executes this file.

HOW: Delegates straight to the CLI's main().
"""

from voice_agent.cli import main

if __name__ == "__main__":
    main()

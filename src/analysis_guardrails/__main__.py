"""Package entry point.

Preferred invocation is via the installed console script:

    analysis-guardrails ...

`python -m analysis_guardrails ...` works too.
"""

from __future__ import annotations

from .cli import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()

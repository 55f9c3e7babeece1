#!/usr/bin/env python3
"""StudyPulse — entry point.

Run with:
    python main.py run --minutes 25 --subject Math
    python -m studypulse today
"""

from studypulse.__main__ import main


if __name__ == "__main__":
    main()

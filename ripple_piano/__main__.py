"""Entry point wrapper for ``python -m ripple_piano``.

Execution is forwarded to :func:`ripple_piano.main` so ``python -m
ripple_piano`` and the installed ``ripple-piano`` console script behave
identically.

Example
-------
::

    python -m ripple_piano --input voice.wav --output voice.mid --seed 7
"""

from . import main

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Entry point for the horizon-run CLI."""

from __future__ import annotations

from horizon_run import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

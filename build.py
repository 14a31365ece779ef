#!/usr/bin/env python3
from sitepipe.cli import main

if __name__ == "__main__":
    main()

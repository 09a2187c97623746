#!/usr/bin/env python
from tabular_translator.main import app

if __name__ == "__main__":
    app()

__version__ = "budaction@0.1.0"

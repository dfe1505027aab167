"""
PathFuzz - Concurrent web path fuzzer and crawler

Discovers hidden files, directories and API paths on a target web server
by substituting wordlist, mutation, OpenAPI and crawl-discovered values
into a URL template and classifying the responses.

Copyright (c) 2025
Licensed under MIT License
"""

__version__ = "1.0.0"
__author__ = "PathFuzz Team"
__status__ = "Development"

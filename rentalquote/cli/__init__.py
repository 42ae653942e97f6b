"""Command-line interface for rentalquote.

Usage:
    rq quote <file|->
    rq quote <file> --beancount
    rq tax-rate <region>
    rq serve [--host] [--port]
"""

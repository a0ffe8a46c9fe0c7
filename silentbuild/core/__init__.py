"""Core engine: state machine, aggregation, parsing, formatting, redirection."""

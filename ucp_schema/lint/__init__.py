"""Schema linting: static checks over schema source files."""

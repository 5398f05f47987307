"""Watch and act on macOS processes that prevent idle sleep."""

"""Command line entry for the campus picker."""

from cli.homepage import main as run_homepage


def main() -> None:
    """Run the CLI campus picker."""
    run_homepage()


if __name__ == "__main__":
    main()

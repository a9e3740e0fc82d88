"""thothixctl 패키지 진입점."""

from thothixctl.cli import app

if __name__ == "__main__":
    app()

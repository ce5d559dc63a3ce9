"""Run the PlantOps API server: ``python -m plantops``."""

from plantops.main import run

if __name__ == "__main__":
    run()

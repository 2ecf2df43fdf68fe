import json

from dotenv import load_dotenv

from blackswan_monitor.log import setup_logging
from blackswan_monitor.service import BlackSwanService


def run():
    print("Loading environment...")
    load_dotenv()
    setup_logging()

    service = BlackSwanService()
    print("Reading latest feed documents...")
    service.watcher.poll_once()

    for source, state in service.aggregator.source_status().items():
        print(f"  {source}: {state}")

    print("Running analysis cycle...")
    outcome = service.run_cycle()
    print(json.dumps(outcome.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    run()

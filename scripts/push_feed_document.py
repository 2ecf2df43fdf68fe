"""Write a feed document the way an upstream analysis service would.

Usage:
    python scripts/push_feed_document.py MACRO path/to/document.json [--id DOC_ID]
"""
import argparse
import json
import uuid
from datetime import datetime, timezone

from dotenv import load_dotenv

from blackswan_monitor.feeds.channels import FeedDocumentStore
from blackswan_monitor.schemas.sources import SOURCE_CONFIG, Source
from blackswan_monitor.store.db import init_db


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("source", choices=[s.value for s in Source])
    parser.add_argument("path", help="JSON file holding the document fields")
    parser.add_argument("--id", dest="doc_id", default=None)
    args = parser.parse_args()

    load_dotenv()
    init_db()

    config = SOURCE_CONFIG[Source(args.source)]
    with open(args.path, "r") as f:
        data = json.load(f)

    # Stamp the recency field if the producer left it out
    data.setdefault(config.order_by, datetime.now(timezone.utc).isoformat())
    doc_id = config.fixed_document_id or args.doc_id or uuid.uuid4().hex

    FeedDocumentStore().put_document(config.collection, doc_id, data)
    print(f"Stored {config.collection}/{doc_id}")


if __name__ == "__main__":
    main()

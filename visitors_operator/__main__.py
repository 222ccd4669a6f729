"""
VisitorsApp Operator entrypoint.

Equivalent to `kopf run -m visitors_operator.operator --all-namespaces`.
"""

import logging
import os

import kopf

# --- Logging ---
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def main():
    # Registers the handlers with kopf's default registry.
    import visitors_operator.operator  # noqa: F401

    namespace = os.environ.get("WATCH_NAMESPACE", "")
    if namespace:
        kopf.run(standalone=True, namespaces=[namespace])
    else:
        kopf.run(standalone=True, clusterwide=True)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
apkmon probe

Flow:
- register the apk exporter once at startup (solver flags are fixed here)
- every --interval seconds run one read cycle:
    * open the apk database read-only, simulate an upgrade, keep real upgrades
    * emit apk-upgradable/count with the package list and OS identity as metadata
- measurements are POSTed to --server /api/metrics, or printed as JSON lines
  on stdout when no server is configured
- --once runs a single cycle and exits
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError

from .apk import ContractViolation
from .config import ProbeConfig
from .exporters import MetricsCollectorManager
from .http_client import MetricsHttpClient


logger = logging.getLogger("apkmon.probe")


def write_metrics(metrics: List[Dict[str, Any]], stream=None) -> None:
    """Write one JSON document per measurement"""
    stream = stream or sys.stdout
    for metric in metrics:
        stream.write(json.dumps(metric) + "\n")
    stream.flush()


async def metrics_loop(
    config: ProbeConfig,
    metrics_collector: MetricsCollectorManager,
    http_client: Optional[MetricsHttpClient] = None,
) -> None:
    """Main collection loop; cycles never overlap."""
    target = config.server or "stdout"
    logger.info("metrics loop starting; reporting to %s every %ss", target, config.interval)

    while True:
        try:
            batch = await metrics_collector.collect_metrics()
            if not batch:
                logger.warning("no metrics collected")
            elif http_client is not None:
                res = http_client.send_metrics(batch, config.token)
                logger.debug("sent metrics: %s", res)
            else:
                write_metrics(batch)

        except ContractViolation:
            raise
        except HTTPError as e:
            try:
                msg = e.read().decode("utf-8")
            except Exception:
                msg = str(e)
            logger.error("HTTP %s error from server: %s", getattr(e, "code", "?"), msg)
        except URLError as e:
            logger.error("failed to reach server: %s", e)
        except Exception as e:
            logger.exception("unexpected error during metrics cycle: %s", e)

        if config.once:
            break
        await asyncio.sleep(max(1, config.interval))


def build_http_client(config: ProbeConfig) -> Optional[MetricsHttpClient]:
    if not config.server:
        return None
    return MetricsHttpClient(config.server, verify_tls=config.verify_tls)


async def run_probe(config: ProbeConfig) -> None:
    """Register exporters and run the collection loop."""
    metrics_collector = MetricsCollectorManager(config=config.__dict__)
    if not metrics_collector.exporters:
        raise SystemExit("ERROR: no exporters available on this system.")

    http_client = build_http_client(config)
    await metrics_loop(config, metrics_collector, http_client)


def main():
    parser = argparse.ArgumentParser(description="apkmon probe")
    parser.add_argument("--config", "-c", type=Path, default=Path("/etc/apkmon/config.yml"),
                        help="YAML configuration file (default: /etc/apkmon/config.yml)")
    parser.add_argument("--server",
                        help="metrics server base URL (e.g., https://server:8000)")
    parser.add_argument("--interval", type=int,
                        help="seconds between read cycles")
    parser.add_argument("--root",
                        help="root directory of the apk installation (default: /)")
    parser.add_argument("--once", action="store_true",
                        help="run one read cycle and exit")
    parser.add_argument("--log-level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level")
    args = parser.parse_args()

    # Load config: YAML first, then CLI overrides
    config = ProbeConfig.from_file(args.config).override_with_args(args)

    # Logs go to stderr so stdout carries only measurements
    logging.basicConfig(level=getattr(logging, config.log_level), stream=sys.stderr)
    logger.info(f"apkmon starting with config: root={config.root}, interval={config.interval}s, "
                f"solver={config.solver_options()}")

    try:
        asyncio.run(run_probe(config))
    except ContractViolation as e:
        logger.critical(f"solver contract violated: {e}")
        raise SystemExit(2)
    except KeyboardInterrupt:
        print("\nInterrupted. Bye!", file=sys.stderr)


if __name__ == "__main__":
    main()

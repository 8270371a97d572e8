# nodemetrics

A library that reads Linux host statistics from `/proc` and `/sys` and turns
them into metrics. It can render them in the Prometheus text exposition format.

## Collectors

Each collector lives in its own module. Importing that module registers the
collector under the name shown here. Calling a collector's `update()` yields
`Metric` objects.

| Module                   | Name         | Class                 | Source                                      |
|--------------------------|--------------|-----------------------|---------------------------------------------|
| `nodemetrics.arp`        | `arp`        | `ARPCollector`        | `/proc/net/arp`, entries per device         |
| `nodemetrics.bonding`    | `bonding`    | `BondingCollector`    | `/sys/class/net`, configured and active slaves |
| `nodemetrics.conntrack`  | `conntrack`  | `ConntrackCollector`  | `/proc/sys/net/netfilter/nf_conntrack_*`    |
| `nodemetrics.entropy`    | `entropy`    | `EntropyCollector`    | `/proc/sys/kernel/random/entropy_avail`     |
| `nodemetrics.filefd`     | `filefd`     | `FileFDStatCollector` | `/proc/sys/fs/file-nr`                      |
| `nodemetrics.edac`       | `edac`       | `EdacCollector`       | `/sys/devices/system/edac/mc`               |
| `nodemetrics.diskstats`  | `diskstats`  | `DiskstatsCollector`  | `/proc/diskstats`                           |
| `nodemetrics.interrupts` | `interrupts` | `InterruptsCollector` | `/proc/interrupts` (disabled by default)    |
| `nodemetrics.drbd`       | `drbd`       | `DRBDCollector`       | `/proc/drbd` (disabled by default)          |
| `nodemetrics.filesystem` | `filesystem` | `FilesystemCollector` | `/proc/1/mounts` or `/proc/mounts`, and `statvfs` |
| `nodemetrics.cpu`        | `cpu`        | `CPUCollector`        | `/proc/stat` and CPU thermal throttle counters |
| `nodemetrics.hwmon`      | `hwmon`      | `HwMonCollector`      | `/sys/class/hwmon` sensors                  |
| `nodemetrics.buddyinfo`  | `buddyinfo`  | `BuddyinfoCollector`  | `/proc/buddyinfo` (disabled by default)     |

## Usage

```python
import nodemetrics.cpu
import nodemetrics.entropy
import nodemetrics.diskstats
from nodemetrics.helpers import configure_paths
from nodemetrics.metrics import format_metrics
from nodemetrics.registry import NodeCollector, set_collector_enabled

# Point at other proc/sys trees if needed, such as a container's host mounts.
configure_paths(procfs="/proc", sysfs="/sys", rootfs="/")

node = NodeCollector()                       # every registered collector that is enabled
print(format_metrics(node.collect()))

only_cpu = NodeCollector("cpu", "entropy")   # restrict to some collectors
```

Only collectors whose modules have been imported are known to the registry.
`NodeCollector` raises `CollectorError` when it is asked for a name that is
not registered or is disabled. `set_collector_enabled(name, enabled)` and
`is_collector_enabled(name)` also raise `CollectorError` for unknown names.

`NodeCollector.collect()` runs the selected collectors in threads. For every
collector it adds `node_scrape_collector_duration_seconds` and
`node_scrape_collector_success`. A collector that raises is reported with
success `0` and does not stop the others. `registry.execute(name, collector)`
does the same for a single collector.

Collectors can also be used directly:

```python
from nodemetrics.diskstats import DiskstatsCollector
from nodemetrics.filesystem import FilesystemCollector

for metric in DiskstatsCollector(ignored_devices=r"^loop\d+$").update():
    print(metric.name, metric.labels, metric.value)

fs = FilesystemCollector(ignored_mount_points="^/(dev|proc|sys)($|/)")
```

When `NodeCollector` builds collectors, it uses their default patterns.

### Parsers

The parsers work on any iterable of text lines, such as an open file:
`arp.parse_arp_entries`, `diskstats.parse_disk_stats`,
`interrupts.parse_interrupts`, `drbd.parse_drbd` (which yields metrics),
`filesystem.parse_filesystem_labels`, `cpu.parse_cpu_stats` and
`buddyinfo.parse_buddy_info`. `filefd.parse_file_fd_stats` takes a file name.
`bonding.read_bonding_stats` takes the `class/net` directory. Malformed input
raises `ValueError`.

### Metrics

`metrics.Desc` describes a metric by name, help text and label names.
`Desc.metric(value_type, value, *label_values)` creates a `Metric`.
`TypedDesc` fixes the `ValueType`. `format_metrics` renders samples grouped by
name, with `# HELP` and `# TYPE` lines.

## What it does not do

There is no command-line program and no HTTP server that serves `/metrics`.
Output comes from calling `format_metrics` yourself. Only the Linux collectors
listed above are provided. Options such as ignore patterns are constructor
arguments, not command-line flags.

## Tests

```
pip install -e .[test]
pytest
```
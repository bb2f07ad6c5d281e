"""Prometheus metrics shared by the monitor and the HTTP API."""

from prometheus_client import Counter, Gauge

node_block_height = Gauge('cosmotrigger_node_block_height', 'Latest block height reported by the node')
node_up = Gauge('cosmotrigger_node_up', 'Node liveness (1=responding, 0=down)')
upgrade_plan_height = Gauge('cosmotrigger_upgrade_plan_height', 'Height of the pending upgrade plan (0=none)')
pipeline_runs_total = Counter('cosmotrigger_pipeline_runs_total', 'Upgrade pipelines triggered', ['result'])
monitor_cycle_errors_total = Counter('cosmotrigger_monitor_cycle_errors_total', 'Monitor cycles that raised')

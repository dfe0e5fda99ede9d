#!/usr/bin/env python3
"""Example: poll every row box field for a few TTIDs and print the decoded values."""

import sys

from pytracker_modbus import DeviceCategory, FieldSpecSource, SiteModbusClient, poll
from pytracker_modbus.errors import FieldSpecError, ModbusIOError


def main() -> None:
    host = "192.168.1.10"  # change to your site controller IP
    ttids = ["1", "2", "101"]

    try:
        specs = FieldSpecSource("json").for_category(DeviceCategory.ROW)
        with SiteModbusClient(host, port=502, timeout=3.0) as site:
            rows = poll(DeviceCategory.ROW, ttids, specs, site.read_registers, site=host)
    except FieldSpecError as e:
        print(f"Field spec error: {e}", file=sys.stderr)
        sys.exit(1)
    except ModbusIOError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)

    for row in rows:
        value = row.error if row.is_error else row.decoded_value
        print(f"TTID {row.identifier} {row.field_id}: unit={row.unit_id} addr={row.starting_address} -> {value}")


if __name__ == "__main__":
    main()

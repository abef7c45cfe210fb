"""
dsgstore command-line interface.

Commands:
    - schema: Print the merged schema of a store
    - query: Run a projection (optionally at a time or over a time range)
      and write the result as CSV or JSON
"""

import argparse
import logging
import sys
from enum import IntEnum
from typing import List, Optional

import geopandas as gpd
import pandas as pd

from .core.config import StoreConfig
from .core.exceptions import ConfigurationError, DSGStoreError
from .query.filters import Comparison, all_of, equals
from .query.query import Query
from .query.timestamp import coerce_timestamp
from .store import StationDataStore

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', type=str, help='YAML store configuration')
    common.add_argument('--netcdf', type=str, help='netCDF station dataset (overrides NETCDF_PATH)')
    common.add_argument('--shapefile', type=str, help='Station shapefile (overrides SHAPEFILE_PATH)')
    common.add_argument('--station-attribute', type=str, dest='station_attribute',
                        help='Shapefile attribute holding the station id')
    common.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    parser = argparse.ArgumentParser(
        prog='dsgstore',
        description='Query station shapefiles joined with netCDF station time series.',
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('schema', parents=[common], help='Print the merged schema')

    query_parser = subparsers.add_parser('query', parents=[common], help='Run a query')
    query_parser.add_argument('--property', '-p', action='append', dest='properties',
                              help='Attribute to return (repeatable; default: all)')
    query_parser.add_argument('--time', type=str, help='Instant to read, e.g. 2020-01-01T00:00')
    query_parser.add_argument('--start', type=str, help='Start of a time range; joined queries read the policy step inside it')
    query_parser.add_argument('--end', type=str, help='End of a time range; joined queries read the policy step inside it')
    query_parser.add_argument('--format', choices=['csv', 'json'], default='csv')
    return parser


def load_config(args: argparse.Namespace) -> StoreConfig:
    values = {}
    if args.config:
        values.update(StoreConfig.from_yaml(args.config).model_dump(by_alias=True))
    if args.netcdf:
        values['NETCDF_PATH'] = args.netcdf
    if args.shapefile:
        values['SHAPEFILE_PATH'] = args.shapefile
    if args.station_attribute:
        values['STATION_ATTRIBUTE'] = args.station_attribute
    return StoreConfig.from_mapping(values)


def _timestamp_arg(option: str, value: str):
    try:
        return coerce_timestamp(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {option} value {value!r}: {e}") from e


def build_query(args: argparse.Namespace, time_name: str) -> Query:
    terms = []
    if args.time:
        terms.append(equals(time_name, _timestamp_arg('--time', args.time)))
    if args.start:
        terms.append(Comparison(time_name, '>=', _timestamp_arg('--start', args.start)))
    if args.end:
        terms.append(Comparison(time_name, '<=', _timestamp_arg('--end', args.end)))
    query_filter = all_of(*terms) if terms else None
    projection = tuple(args.properties) if args.properties else None
    return Query(projection=projection, filter=query_filter)


def run_schema(store: StationDataStore) -> int:
    for descriptor in store.schema:
        origin = descriptor.variable.kind.value if descriptor.is_external else 'vector'
        print(f"{descriptor.name}\t{descriptor.value_type.value}\t{origin}")
    return ExitCode.SUCCESS


def run_query(store: StationDataStore, args: argparse.Namespace) -> int:
    query = build_query(args, store.schema.time_attribute_name)
    frame = store.to_dataframe(query)
    if isinstance(frame, gpd.GeoDataFrame):
        frame = pd.DataFrame(frame).assign(geometry=frame.geometry.to_wkt())
    if args.format == 'json':
        sys.stdout.write(frame.reset_index().to_json(orient='records', date_format='iso'))
        sys.stdout.write('\n')
    else:
        frame.to_csv(sys.stdout)
    return ExitCode.SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s',
    )

    try:
        config = load_config(args)
        store = StationDataStore.from_config(config)
    except DSGStoreError as e:
        logger.error("%s", e)
        return ExitCode.CONFIG_ERROR

    try:
        with store:
            if args.command == 'schema':
                return run_schema(store)
            return run_query(store, args)
    except DSGStoreError as e:
        logger.error("%s", e)
        return ExitCode.GENERAL_ERROR


if __name__ == '__main__':
    sys.exit(main())

"""Node, fact, report and group sources."""
from sources.base import NodeSource, GroupSource, parse_timestamp
from sources.inventory import InventorySource
from sources.puppetdb import PuppetDBSource

"""
Read-side collaborators of the coordination service.

The roster and fixture stores are defined as protocols so another
backend can be plugged in; the SQL implementations read the tables in
subdesk.db.models through the operation's own session.
"""

from subdesk.stores.fixtures import FixtureRef, FixtureStore, SqlFixtureStore
from subdesk.stores.roster import RosterMember, RosterStore, SqlRosterStore, TeamRef

__all__ = [
    "FixtureRef",
    "FixtureStore",
    "SqlFixtureStore",
    "RosterMember",
    "RosterStore",
    "SqlRosterStore",
    "TeamRef",
]

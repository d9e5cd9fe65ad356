# Terminal Lane Queueing: Database Models
# Import all models here for SQLAlchemy discovery

from terminal.models.vehicle import Vehicle                    # noqa
from terminal.models.entry_log import EntryLog                 # noqa
from terminal.models.sequence_counter import SequenceCounter   # noqa

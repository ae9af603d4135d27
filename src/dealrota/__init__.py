"""dealrota: round-robin turn taking for a periodic job shared by many workers.

Workers coordinate only through one shared document. Each poll either takes
the turn (and runs the job) or stands by; a turn held past the timeout is
recovered by the next worker in rotation. A durable seen-set keeps the job
from acting on the same item twice.
"""

__version__ = "0.1.0"

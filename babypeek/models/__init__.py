from babypeek.models.download import Download
from babypeek.models.job import Job
from babypeek.models.preference import Preference
from babypeek.models.purchase import Purchase
from babypeek.models.result import Result

__all__ = ["Download", "Job", "Preference", "Purchase", "Result"]

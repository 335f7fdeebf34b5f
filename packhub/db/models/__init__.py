from packhub.db.models.pack import Pack, PackScreenshot, PackVersion
from packhub.db.models.username import Username

__all__ = ["Pack", "PackScreenshot", "PackVersion", "Username"]

from packhub.controllers.auth import AuthController
from packhub.controllers.packs import PackController
from packhub.controllers.uploads import UploadController
from packhub.controllers.usernames import UsernameController

__all__ = ["AuthController", "PackController", "UploadController", "UsernameController"]

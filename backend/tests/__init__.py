# Force SQLModel table registration at test discovery time
# so create_all in the fixtures sees the user and session tables
from warp_server.models.session import SessionRecord  # noqa: F401
from warp_server.models.user import User  # noqa: F401

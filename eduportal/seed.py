"""Fixed initial dataset used to seed an empty installation."""

from .models import User, Video

_SAMPLE_SOURCE = "https://storage.googleapis.com/gtv-videos-bucket/sample"


def _urls(name: str) -> dict[str, str]:
    return {
        "1080p": f"{_SAMPLE_SOURCE}/{name}.mp4",
        "720p": f"{_SAMPLE_SOURCE}/{name}.mp4",
        "480p": f"{_SAMPLE_SOURCE}/{name}.mp4",
    }


INITIAL_USERS = [
    User(id="user_admin", name="Admin", email="admin@eduportal.com",
         password="admin123", role="admin", class_=None),
    User(id="user_student_8", name="Priya Sharma", email="priya@eduportal.com",
         password="student123", role="student", class_="8"),
    User(id="user_student_9", name="Arjun Rao", email="arjun@eduportal.com",
         password="student123", role="student", class_="9"),
    User(id="user_student_10", name="Meera Iyer", email="meera@eduportal.com",
         password="student123", role="student", class_="10"),
]

INITIAL_VIDEOS = [
    Video(
        id="video_seed_1",
        title="Introduction to Algebra",
        description="Variables, expressions and simple equations.",
        subject="Mathematics",
        class_="8",
        duration="12:45",
        views=120,
        status="published",
        thumbnail_url="https://picsum.photos/seed/algebra/400/225",
        video_urls=_urls("BigBuckBunny"),
        tags=["algebra", "basics"],
        uploaded_at="2024-05-01T09:00:00.000Z",
    ),
    Video(
        id="video_seed_2",
        title="Photosynthesis Explained",
        description="How plants turn light into chemical energy.",
        subject="Biology",
        class_="9",
        duration="18:20",
        views=85,
        status="published",
        thumbnail_url="https://picsum.photos/seed/photosynthesis/400/225",
        video_urls=_urls("ElephantsDream"),
        tags=["plants", "energy"],
        uploaded_at="2024-05-03T10:30:00.000Z",
    ),
    Video(
        id="video_seed_3",
        title="Newton's Laws of Motion",
        description="Force, mass and acceleration with worked examples.",
        subject="Physics",
        class_="10",
        duration="24:15",
        views=240,
        status="published",
        thumbnail_url="https://picsum.photos/seed/newton/400/225",
        video_urls=_urls("ForBiggerBlazes"),
        tags=["mechanics"],
        uploaded_at="2024-05-05T14:00:00.000Z",
    ),
    Video(
        id="video_seed_4",
        title="The Mughal Empire",
        description="Rise and administration of the Mughal dynasty.",
        subject="History",
        class_="8",
        duration="21:05",
        views=40,
        status="draft",
        thumbnail_url="https://picsum.photos/seed/mughal/400/225",
        video_urls=_urls("ForBiggerEscapes"),
        uploaded_at="2024-05-07T08:15:00.000Z",
    ),
]


def initial_users() -> list[User]:
    """Return fresh copies of the seed users."""
    return [User.from_dict(u.to_dict(include_secret=True)) for u in INITIAL_USERS]


def initial_videos() -> list[Video]:
    """Return fresh copies of the seed videos."""
    return [Video.from_dict(v.to_dict()) for v in INITIAL_VIDEOS]

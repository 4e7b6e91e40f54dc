import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

# Display order of a session's questions: pinned first, then oldest first.
QUESTION_SORT = [("isPinned", DESCENDING), ("createdAt", ASCENDING)]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class User:
    name: str
    email: str
    password: str # bcrypt hash
    profileImageUrl: Optional[str] = None
    createdAt: dt.datetime = field(default_factory=utcnow)
    updatedAt: dt.datetime = field(default_factory=utcnow)


@dataclass
class Session:
    user: ObjectId
    role: str
    experience: str
    topicsToFocus: str
    description: str = ""
    questions: List[ObjectId] = field(default_factory=list)
    createdAt: dt.datetime = field(default_factory=utcnow)
    updatedAt: dt.datetime = field(default_factory=utcnow)


@dataclass
class Question:
    session: ObjectId
    question: str
    answer: str
    note: str = ""
    isPinned: bool = False
    createdAt: dt.datetime = field(default_factory=utcnow)
    updatedAt: dt.datetime = field(default_factory=utcnow)


def to_json(value: Any) -> Any:
    """Make a Mongo document (or anything nested in one) JSON-friendly."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(doc["_id"]),
        "name": doc.get("name", ""),
        "email": doc.get("email", ""),
        "profileImageUrl": doc.get("profileImageUrl"),
    }


def populate_questions(db: Any, session_doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the session's question ids with the question documents."""
    ids = session_doc.get("questions", []) or []
    if not ids:
        return {**session_doc, "questions": []}
    questions = db.questions.find({"_id": {"$in": ids}}).sort(QUESTION_SORT)
    return {**session_doc, "questions": list(questions)}

import base64
import logging
import os
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import bson
from bson import ObjectId
from flask import Blueprint, Flask, current_app, g, jsonify, request
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ai_util.gemini_client import GeminiClient, GeminiError
from ai_util.interview_ai import InterviewAIUtil
from ai_util.normalizer import AIResponseError
from backend.auth import check_password, create_token, hash_password, require_auth
from backend.config import Settings
from backend.errors import (
    AuthError,
    NotFoundError,
    ValidationError,
    ai_response_error_response,
    error_response,
    gemini_error_response,
    register_error_handlers,
)
from backend.models import Question, Session, User, populate_questions, public_user, to_json, utcnow
from backend.mongo import MongoConnection

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

# Room for multipart framing and form fields around the image itself.
UPLOAD_OVERHEAD_BYTES = 64 * 1024


def get_db() -> Any:
    return current_app.extensions["mongo"].db


def get_settings() -> Settings:
    return current_app.extensions["settings"]


def get_ai_util() -> Optional[InterviewAIUtil]:
    return current_app.extensions.get("ai_util")


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def parse_object_id(value: Any, label: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (bson.errors.InvalidId, TypeError):
        raise ValidationError(f"Invalid {label}", error="INVALID_ID")


def current_user_id() -> ObjectId:
    try:
        return ObjectId(g.user_id)
    except (bson.errors.InvalidId, TypeError):
        raise AuthError("Not authorized, token failed")


def load_owned_session(db: Any, session_id: ObjectId) -> Dict[str, Any]:
    session_doc = db.sessions.find_one({"_id": session_id})
    if not session_doc:
        raise NotFoundError("Session not found")
    if str(session_doc.get("user")) != g.user_id:
        raise AuthError("Not authorized")
    return session_doc


def load_owned_question(db: Any, question_id: ObjectId) -> Dict[str, Any]:
    question_doc = db.questions.find_one({"_id": question_id})
    if not question_doc:
        raise NotFoundError("Question not found")
    session_doc = db.sessions.find_one({"_id": question_doc.get("session")})
    if not session_doc or str(session_doc.get("user")) != g.user_id:
        raise AuthError("Not authorized")
    return question_doc


def validate_question_items(items: Any) -> List[Dict[str, str]]:
    if not isinstance(items, list):
        raise ValidationError("Invalid input data")
    out = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Invalid input data")
        question, answer = item.get("question"), item.get("answer")
        if not isinstance(question, str) or not question or not isinstance(answer, str) or not answer:
            raise ValidationError("Question and answer text cannot be empty")
        out.append({"question": question, "answer": answer})
    return out


def auth_payload(user_doc: Dict[str, Any]) -> Dict[str, Any]:
    settings = get_settings()
    token = create_token(str(user_doc["_id"]), settings.jwt_secret, settings.jwt_expires_days)
    return {**public_user(user_doc), "token": token}


@api.route("/hello")
def hello():
    return jsonify({"message": "API Working!"})


@api.route("/auth/register", methods=["POST"])
def register():
    payload = json_body()
    name = payload.get("name")
    email = payload.get("email")
    password = payload.get("password")
    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")
    if not all(isinstance(v, str) for v in (name, email, password)):
        raise ValidationError("Name, email and password must be strings")

    db = get_db()
    if db.users.find_one({"email": email}):
        return error_response(400, "USER_EXISTS", "User already exists")

    user = User(
        name=name,
        email=email,
        password=hash_password(password),
        profileImageUrl=payload.get("profileImageUrl"),
    )
    user_doc = asdict(user)
    try:
        result = db.users.insert_one(user_doc)
    except DuplicateKeyError:
        return error_response(400, "USER_EXISTS", "User already exists")

    user_doc["_id"] = result.inserted_id
    logger.info("Registered user %s", result.inserted_id)
    return jsonify(auth_payload(user_doc))


@api.route("/auth/login", methods=["POST"])
def login():
    payload = json_body()
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required")

    user_doc = get_db().users.find_one({"email": email})
    if not user_doc or not check_password(password, user_doc.get("password", "")):
        return error_response(401, "INVALID_CREDENTIALS", "Invalid email or password")

    return jsonify(auth_payload(user_doc))


@api.route("/auth/profile", methods=["GET"])
@require_auth
def profile():
    user_doc = get_db().users.find_one({"_id": current_user_id()}, {"password": 0})
    if not user_doc:
        raise NotFoundError("User not found")
    return jsonify(public_user(user_doc))


@api.route("/auth/upload-profile-image", methods=["POST"])
@require_auth
def upload_profile_image():
    image = request.files.get("image")
    if not image or not image.filename:
        raise ValidationError("No image file provided")
    if not (image.mimetype or "").startswith("image/"):
        raise ValidationError("Invalid file type. Please upload an image.")

    image_bytes = image.read()
    max_bytes = get_settings().max_profile_image_bytes
    if len(image_bytes) > max_bytes:
        raise ValidationError(
            f"File too large. Please upload an image smaller than {max_bytes // (1024 * 1024)}MB."
        )

    data_url = f"data:{image.mimetype};base64,{base64.b64encode(image_bytes).decode('ascii')}"
    user_doc = get_db().users.find_one_and_update(
        {"_id": current_user_id()},
        {"$set": {"profileImageUrl": data_url, "updatedAt": utcnow()}},
        projection={"password": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not user_doc:
        raise NotFoundError("User not found")

    return jsonify({
        "message": "Profile image updated successfully",
        "profileImageUrl": data_url,
        "user": public_user(user_doc),
    })


@api.route("/sessions/create", methods=["POST"])
@require_auth
def create_session():
    payload = json_body()
    role = payload.get("role")
    experience = payload.get("experience")
    topics = payload.get("topicsToFocus")
    if not role or not experience or not topics:
        raise ValidationError("Role, experience and topicsToFocus are required")
    question_items = validate_question_items(payload.get("questions") or [])

    db = get_db()
    session = Session(
        user=current_user_id(),
        role=role,
        experience=str(experience),
        topicsToFocus=topics,
        description=payload.get("description") or "",
    )
    session_doc = asdict(session)
    session_id = db.sessions.insert_one(session_doc).inserted_id
    session_doc["_id"] = session_id

    if question_items:
        question_docs = [
            asdict(Question(session=session_id, question=q["question"], answer=q["answer"]))
            for q in question_items
        ]
        question_ids = list(db.questions.insert_many(question_docs).inserted_ids)
        db.sessions.update_one({"_id": session_id}, {"$set": {"questions": question_ids}})
        session_doc["questions"] = question_ids

    logger.info("Created session %s with %d questions", session_id, len(question_items))
    return jsonify({"success": True, "session": to_json(session_doc)})


@api.route("/sessions/my-sessions", methods=["GET"])
@require_auth
def my_sessions():
    sessions = get_db().sessions.find({"user": current_user_id()}).sort("createdAt", DESCENDING)
    return jsonify([to_json(doc) for doc in sessions])


@api.route("/sessions/<sessionID>", methods=["GET"])
@require_auth
def get_session(sessionID):
    db = get_db()
    session_doc = load_owned_session(db, parse_object_id(sessionID, "sessionID"))
    return jsonify({"success": True, "session": to_json(populate_questions(db, session_doc))})


@api.route("/sessions/<sessionID>", methods=["DELETE"])
@require_auth
def delete_session(sessionID):
    db = get_db()
    session_doc = load_owned_session(db, parse_object_id(sessionID, "sessionID"))

    removed = db.questions.delete_many({"session": session_doc["_id"]})
    db.sessions.delete_one({"_id": session_doc["_id"]})
    logger.info("Deleted session %s and %d questions", session_doc["_id"], removed.deleted_count)
    return jsonify({"success": True, "message": "Session deleted successfully"})


@api.route("/questions/add", methods=["POST"])
@require_auth
def add_questions():
    payload = json_body()
    questions = payload.get("questions")
    if not payload.get("sessionId") or not isinstance(questions, list) or not questions:
        raise ValidationError("Invalid input data")
    question_items = validate_question_items(questions)
    session_id = parse_object_id(payload["sessionId"], "sessionId")

    db = get_db()
    session_doc = db.sessions.find_one({"_id": session_id})
    # Absent and not-owned sessions get the same answer.
    if not session_doc or str(session_doc.get("user")) != g.user_id:
        raise NotFoundError("Session not found or not authorized")

    question_docs = [
        asdict(Question(session=session_id, question=q["question"], answer=q["answer"]))
        for q in question_items
    ]
    question_ids = list(db.questions.insert_many(question_docs).inserted_ids)
    db.sessions.update_one(
        {"_id": session_id},
        {"$push": {"questions": {"$each": question_ids}}, "$set": {"updatedAt": utcnow()}},
    )
    for doc, question_id in zip(question_docs, question_ids):
        doc["_id"] = question_id

    return jsonify({"success": True, "createdQuestions": to_json(question_docs)})


@api.route("/questions/<questionID>/pin", methods=["POST"])
@require_auth
def toggle_pin(questionID):
    db = get_db()
    question_doc = load_owned_question(db, parse_object_id(questionID, "questionID"))

    changes = {"isPinned": not bool(question_doc.get("isPinned")), "updatedAt": utcnow()}
    db.questions.update_one({"_id": question_doc["_id"]}, {"$set": changes})
    return jsonify({"success": True, "question": to_json({**question_doc, **changes})})


@api.route("/questions/<questionID>/note", methods=["POST"])
@require_auth
def update_note(questionID):
    note = json_body().get("note", "")
    if not isinstance(note, str):
        raise ValidationError("Note must be a string")

    db = get_db()
    question_doc = load_owned_question(db, parse_object_id(questionID, "questionID"))

    changes = {"note": note, "updatedAt": utcnow()}
    db.questions.update_one({"_id": question_doc["_id"]}, {"$set": changes})
    return jsonify({"success": True, "question": to_json({**question_doc, **changes})})


@api.route("/ai/generate-questions", methods=["POST"])
@require_auth
def generate_questions():
    ai_util = get_ai_util()
    if ai_util is None:
        return error_response(
            500,
            "AI_NOT_CONFIGURED",
            "Gemini API key is not configured. Please add GEMINI_API_KEY to your environment variables.",
        )

    payload = json_body()
    role = payload.get("role")
    experience = payload.get("experience")
    topics = payload.get("topicsToFocus")
    number_of_questions = payload.get("numberOfQuestions")
    if not role or not experience or not topics or not number_of_questions:
        raise ValidationError("Missing required fields")

    try:
        questions = ai_util.generate_questions(
            role=role,
            experience=experience,
            topics_to_focus=topics,
            number_of_questions=number_of_questions,
        )
    except AIResponseError as e:
        return ai_response_error_response(e, message="AI generated an invalid response format. Please try again.")
    except GeminiError as e:
        logger.error("AI generation error: %s", e)
        return gemini_error_response(
            e,
            fallback_error="AI_GENERATION_FAILED",
            fallback_message="Failed to generate questions using AI. Please try again later.",
        )

    return jsonify([q.to_dict() for q in questions])


@api.route("/ai/generate-explanation", methods=["POST"])
@require_auth
def generate_explanation():
    ai_util = get_ai_util()
    if ai_util is None:
        return error_response(
            500,
            "AI_NOT_CONFIGURED",
            "Gemini API key is not configured. Please add GEMINI_API_KEY to your environment variables.",
        )

    question = json_body().get("question")
    if not question:
        raise ValidationError("Missing required fields")

    try:
        explanation = ai_util.generate_explanation(question=question)
    except AIResponseError as e:
        return ai_response_error_response(e, message="AI generated an invalid explanation format. Please try again.")
    except GeminiError as e:
        logger.error("AI explanation generation error: %s", e)
        return gemini_error_response(
            e,
            fallback_error="AI_EXPLANATION_FAILED",
            fallback_message="Failed to generate explanation using AI. Please try again later.",
        )

    return jsonify(explanation.to_dict())


def build_ai_util(settings: Settings) -> Optional[InterviewAIUtil]:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not defined; AI endpoints are disabled")
        return None
    gemini = GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_s=settings.gemini_timeout_s,
    )
    return InterviewAIUtil(gemini=gemini)


def create_server(settings: Settings, mongo: MongoConnection, ai_util: Optional[InterviewAIUtil] = None) -> Flask:
    server = Flask(__name__)
    # Werkzeug rejects bodies past this before a handler reads them.
    server.config["MAX_CONTENT_LENGTH"] = settings.max_profile_image_bytes + UPLOAD_OVERHEAD_BYTES
    server.extensions["settings"] = settings
    server.extensions["mongo"] = mongo
    server.extensions["ai_util"] = ai_util
    server.register_blueprint(api)
    register_error_handlers(server)
    return server


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stdout,
    )


if __name__ == '__main__':
    import set_env_vars

    set_env_vars.load()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    settings = Settings.from_env()
    mongo = MongoConnection(settings.mongo_uri, settings.mongo_db)
    server = create_server(settings, mongo, build_ai_util(settings))
    try:
        server.run(port=settings.port)
    finally:
        mongo.close()

from chestquiz import db, bcrypt
from flask_login import UserMixin
import json
import random
import time


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    sessions = db.relationship('GameSession', back_populates='host', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


SESSION_ACTIVE = 'active'
SESSION_ENDED = 'ended'


def generate_session_code(length=6):
    """Generate a numeric join code no active session is using."""
    low, high = 10 ** (length - 1), 10 ** length - 1
    while True:
        code = str(random.randint(low, high))
        if not GameSession.query.filter_by(code=code, status=SESSION_ACTIVE).first():
            return code


class GameSession(db.Model):
    """Persisted blob of one session: the snapshot plus the content options
    needed to resume it without going back to the question bank."""
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), nullable=False, index=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SESSION_ACTIVE)  # active, ended
    blob = db.Column(db.Text, nullable=False, default='{}')
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)
    host = db.relationship('User', back_populates='sessions')

    @classmethod
    def active_by_code(cls, code):
        return cls.query.filter_by(code=str(code).strip(), status=SESSION_ACTIVE).first()

    @property
    def data(self):
        try:
            return json.loads(self.blob) if self.blob else {}
        except ValueError:
            return {}

    def store(self, session_snapshot, options):
        self.blob = json.dumps({'session': session_snapshot, 'options': options})
        self.updated_at = time.time()

    def to_dict(self):
        data = self.data
        session = data.get('session') or {}
        return {
            'id': self.id,
            'game_code': self.code,
            'status': self.status,
            'game_name': session.get('game_name') or (data.get('options') or {}).get('game_name'),
            'phase': session.get('phase'),
            'question_cursor': session.get('question_cursor'),
            'total_questions': session.get('total_questions'),
            'updated_at': self.updated_at,
        }

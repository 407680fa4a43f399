from hitman import db
import enum


class GameStatus(str, enum.Enum):
    LOBBY = 'lobby'
    IN_PROGRESS = 'in_progress'
    FINISHED = 'finished'


def normalise_name(name: str) -> str:
    """Key used for case-insensitive name uniqueness within a game."""
    return name.strip().casefold()


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    status = db.Column(db.String(16), default=GameStatus.LOBBY.value, nullable=False)  # lobby, in_progress, finished
    host_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_game_host_id', use_alter=True), nullable=True)
    winner_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_game_winner_id', use_alter=True), nullable=True)
    players = db.relationship(
        'Player',
        foreign_keys='Player.game_id',
        back_populates='game',
        order_by='Player.id',
        passive_deletes=True,
    )

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'status': self.status,
            'host_id': self.host_id,
            'winner_id': self.winner_id,
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'name_key', name='uq_player_game_name'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    name_key = db.Column(db.String(64), nullable=False)
    secret_code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    auth_token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    is_alive = db.Column(db.Boolean, default=True, nullable=False)
    # Ring edge; an index into this table, never an in-memory pointer
    target_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_player_target_id'), nullable=True)
    game = db.relationship('Game', foreign_keys=[game_id], back_populates='players')

    def __init__(self, **kwargs):
        super(Player, self).__init__(**kwargs)
        if self.name and not self.name_key:
            self.name_key = normalise_name(self.name)

    @property
    def target_name(self):
        if self.target_id is None:
            return None
        target = db.session.get(Player, self.target_id)
        return target.name if target is not None else None

    def to_dict(self, include_secret=False, include_target=True):
        data = {
            'id': self.id,
            'name': self.name,
            'is_alive': self.is_alive,
        }
        if include_target:
            data['target_name'] = self.target_name
        if include_secret:
            data['secret_code'] = self.secret_code
        return data

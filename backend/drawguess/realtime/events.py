from __future__ import annotations


class ClientEvent:
    JOIN_ROOM = "joinRoom"
    PLAYER_READY = "playerReady"
    START_GAME = "startGame"
    SELECT_WORD = "selectWord"
    DRAWING_EVENT = "drawingEvent"
    GUESS = "guess"
    CHAT_MESSAGE = "chatMessage"
    LEAVE_ROOM = "leaveRoom"
    UPDATE_SETTINGS = "updateSettings"


class ServerEvent:
    ROOM_UPDATE = "roomUpdate"
    PLAYER_JOINED = "playerJoined"
    PLAYER_LEFT = "playerLeft"
    ROUND_START = "roundStart"
    WORD_SELECTION_START = "wordSelectionStart"
    WORD_SELECTED = "wordSelected"
    WORD_SELECTION_TIMEOUT = "wordSelectionTimeout"
    DRAWING_EVENT = "drawingEvent"
    CORRECT_GUESS = "correctGuess"
    CHAT_MESSAGE = "chatMessage"
    ROUND_END = "roundEnd"
    DRAWING_TIMEOUT = "drawingTimeout"
    GAME_END = "gameEnd"
    ROUND_PAUSED = "roundPaused"
    ROUND_RESUMED = "roundResumed"
    ERROR = "error"

"""
Unit tests for database functionality.
"""

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy.exc import SQLAlchemyError

from core.database import get_db
from core.exceptions import RecordNotFound


class TestGetDb:
    """Test cases for the session dependency."""

    @patch('core.database.SessionLocal')
    def test_get_db_success(self, mock_session_local):
        """Test successful database session creation and cleanup."""
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        db_iter = get_db()
        db = next(db_iter)
        assert db == mock_session

        with pytest.raises(StopIteration):
            next(db_iter)
        mock_session.close.assert_called_once()
        mock_session.rollback.assert_not_called()

    @patch('core.database.SessionLocal')
    def test_get_db_rolls_back_on_sqlalchemy_error(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        db_iter = get_db()
        next(db_iter)
        with pytest.raises(SQLAlchemyError):
            db_iter.throw(SQLAlchemyError("connection lost"))

        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()

    @patch('core.database.SessionLocal')
    def test_get_db_rolls_back_on_booking_error(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        db_iter = get_db()
        next(db_iter)
        with pytest.raises(RecordNotFound):
            db_iter.throw(RecordNotFound())

        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()

"""
Collector account tests.

Verifies:
- Registration stores a bcrypt hash, never the plaintext
- Login uniqueness is checked at registration
- authenticate() accepts only the right password
"""

import pytest

from cobros.services import user_service
from cobros.validation import ConflictError, ValidationError


class TestRegistration:
    def test_password_is_hashed(self, db_session):
        user = user_service.register_user("Luis", "Martinez", "luis", "secreto123")
        assert user.id_usuario is not None
        assert user.contrasena != "secreto123"
        assert user.contrasena.startswith("$2")
        assert user_service.verify_password("secreto123", user.contrasena)

    def test_same_password_gets_different_salts(self, db_session):
        first = user_service.register_user("Luis", "Martinez", "luis", "secreto123")
        second = user_service.register_user("Marta", "Rivas", "marta", "secreto123")
        assert first.contrasena != second.contrasena

    def test_duplicate_login_rejected(self, db_session, collector):
        with pytest.raises(ConflictError):
            user_service.register_user("Otro", "Luis", "luis", "otraclave")
        assert len(user_service.get_all_users()) == 1

    @pytest.mark.parametrize("field", ["nombre", "apellido", "usuario_login", "password"])
    def test_blank_fields_rejected(self, db_session, field):
        values = {"nombre": "Luis", "apellido": "Martinez", "usuario_login": "luis", "password": "x"}
        values[field] = "   "
        with pytest.raises(ValidationError):
            user_service.register_user(**values)

    def test_to_dict_hides_password(self, db_session, collector):
        assert "contrasena" not in collector.to_dict()
        assert collector.to_dict()["usuario_login"] == "luis"


class TestAuthentication:
    def test_valid_credentials(self, db_session, collector):
        user = user_service.authenticate("luis", "secreto123")
        assert user is not None
        assert user.id_usuario == collector.id_usuario

    def test_wrong_password(self, db_session, collector):
        assert user_service.authenticate("luis", "incorrecta") is None

    def test_unknown_login(self, db_session):
        assert user_service.authenticate("nadie", "secreto123") is None

    def test_lookup_helpers(self, db_session, collector, other_collector):
        assert user_service.get_user_by_login("marta").id_usuario == other_collector.id_usuario
        assert user_service.get_user_by_login("nadie") is None
        assert user_service.get_user_by_id(collector.id_usuario).usuario_login == "luis"
        assert [u.usuario_login for u in user_service.get_all_users()] == ["luis", "marta"]

    def test_delete_missing_is_noop(self, db_session, collector):
        user_service.delete_user(404)
        assert len(user_service.get_all_users()) == 1

# repositories/__init__.py
# 参与者与信息的数据仓库 / Participant & message repositories

from grouper.repositories.yml import YmlMessageVariantsRepository, YmlParticipantRepository

__all__ = ["YmlMessageVariantsRepository", "YmlParticipantRepository"]

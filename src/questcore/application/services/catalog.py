from questcore.domain.models.dungeon import Dungeon, DungeonDifficulty, DungeonRoom, EncounterType
from questcore.domain.models.mission import Mission, MissionRarity, MissionType
from questcore.domain.models.stats import StatRequirement, StatType


def goblin_caves() -> Dungeon:
    return Dungeon(
        name="Goblin Caves",
        difficulty=DungeonDifficulty.NORMAL,
        rooms=[
            DungeonRoom("Cave Entrance", EncounterType.COMBAT, StatType.STRENGTH, 12),
            DungeonRoom("Trapped Corridor", EncounterType.TRAP, StatType.DEXTERITY, 10),
            DungeonRoom("Goblin Chief", EncounterType.BOSS, StatType.STRENGTH, 18, is_boss_room=True, bonus_loot_chance=0.3),
        ],
        base_exp_reward=150,
        base_gold_reward=80,
        level_requirement=1,
        loot_tier=1,
        stat_requirements=[
            StatRequirement(StatType.STRENGTH, 5),
            StatRequirement(StatType.DEXTERITY, 3),
        ],
        id="goblin_caves",
    )


def ancient_ruins() -> Dungeon:
    return Dungeon(
        name="Ancient Ruins",
        difficulty=DungeonDifficulty.NORMAL,
        rooms=[
            DungeonRoom("The Entry Hall", EncounterType.PUZZLE, StatType.WISDOM, 14),
            DungeonRoom("Guardian Chamber", EncounterType.COMBAT, StatType.STRENGTH, 16),
            DungeonRoom("Treasure Vault", EncounterType.TREASURE, StatType.LUCK, 10, bonus_loot_chance=0.5),
            DungeonRoom(
                "The Sealed Door",
                EncounterType.PUZZLE,
                StatType.WISDOM,
                20,
                is_boss_room=True,
                bonus_loot_chance=0.35,
            ),
        ],
        base_exp_reward=300,
        base_gold_reward=175,
        level_requirement=5,
        loot_tier=2,
        stat_requirements=[
            StatRequirement(StatType.WISDOM, 8),
            StatRequirement(StatType.STRENGTH, 6),
        ],
        id="ancient_ruins",
    )


def starter_dungeons() -> list[Dungeon]:
    return [goblin_caves(), ancient_ruins()]


def starter_missions() -> list[Mission]:
    return [
        Mission(
            name="Patrol the Outskirts",
            mission_type=MissionType.COMBAT,
            rarity=MissionRarity.COMMON,
            duration_seconds=30 * 60,
            exp_reward=40,
            gold_reward=20,
            id="patrol_outskirts",
        ),
        Mission(
            name="Catalogue the Archive",
            mission_type=MissionType.RESEARCH,
            rarity=MissionRarity.UNCOMMON,
            duration_seconds=2 * 3600,
            exp_reward=90,
            gold_reward=45,
            stat_requirements=[StatRequirement(StatType.WISDOM, 6)],
            level_requirement=3,
            id="catalogue_archive",
        ),
        Mission(
            name="Scout the Ridge",
            mission_type=MissionType.EXPLORATION,
            rarity=MissionRarity.RARE,
            duration_seconds=4 * 3600,
            exp_reward=180,
            gold_reward=90,
            level_requirement=8,
            can_drop_equipment=True,
            id="scout_ridge",
        ),
    ]

from rest_framework import serializers

from .models import Category, Nominee


class CategorySerializer(serializers.ModelSerializer):
    is_voting_open = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            "id", "name", "slug", "description", "icon", "is_active",
            "voting_start", "voting_end", "vote_price", "max_votes_per_user",
            "display_order", "featured", "is_voting_open",
        ]
        read_only_fields = fields

    def get_is_voting_open(self, obj) -> bool:
        return obj.is_voting_open()


class NomineeSerializer(serializers.ModelSerializer):
    student_name = serializers.SerializerMethodField()
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = Nominee
        fields = [
            "id", "student", "student_name", "category", "category_name",
            "nomination_reason", "campaign_statement", "status", "is_disqualified",
            "total_votes", "total_revenue", "unique_voters", "average_vote_value",
            "last_vote_at", "rank", "created",
        ]
        read_only_fields = [
            "status", "is_disqualified", "total_votes", "total_revenue", "unique_voters",
            "average_vote_value", "last_vote_at", "rank", "created",
        ]

    def get_student_name(self, obj) -> str:
        full = f"{obj.student.first_name} {obj.student.last_name}".strip()
        return full or obj.student.email

    def validate(self, attrs):
        category = attrs["category"]
        if not category.is_active:
            raise serializers.ValidationError("Nominations are closed for this category.")
        if Nominee.objects.filter(student=attrs["student"], category=category).exists():
            raise serializers.ValidationError("This student is already nominated in this category.")
        return attrs


class ReviewSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class DisqualifySerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=10, max_length=500)

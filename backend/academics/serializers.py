from django.contrib.auth import get_user_model
from rest_framework import serializers

from academics import models as ac_models
from academics.services.audit_log import RollbackSelector

User = get_user_model()


class SchoolClassSerializer(serializers.ModelSerializer):
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = ac_models.SchoolClass
        fields = ('id', 'name', 'level', 'academic_year', 'is_active', 'student_count')

    def get_student_count(self, obj):
        return obj.roster_entries.count()

    def to_internal_value(self, data):
        # normalise before the model's upper-case-only validator runs
        if isinstance(data.get('name'), str):
            data = data.copy()
            data['name'] = data['name'].strip().upper()
        return super().to_internal_value(data)


class StudentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'username', 'first_name', 'last_name')


class AdmissionSerializer(serializers.Serializer):
    student_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), source='student')
    class_id = serializers.PrimaryKeyRelatedField(queryset=ac_models.SchoolClass.objects.all(), source='school_class')


class PromoteSerializer(serializers.Serializer):
    # Emptiness is left to the engine so callers get the EMPTY_COHORT code.
    student_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    from_class_id = serializers.PrimaryKeyRelatedField(queryset=ac_models.SchoolClass.objects.all(), source='from_class')
    to_class_id = serializers.PrimaryKeyRelatedField(queryset=ac_models.SchoolClass.objects.all(), source='to_class')
    session = serializers.CharField(max_length=32)
    term = serializers.CharField(max_length=32)


class RollbackSerializer(serializers.Serializer):
    record_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    batch_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    session = serializers.CharField(required=False, allow_null=True, default=None)
    term = serializers.CharField(required=False, allow_null=True, default=None)
    promoted_by = serializers.IntegerField(required=False, allow_null=True, default=None)
    promotion_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    from_class_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    to_class_id = serializers.IntegerField(required=False, allow_null=True, default=None)

    def to_selector(self) -> RollbackSelector:
        data = self.validated_data
        return RollbackSelector(
            record_ids=list(data['record_ids']),
            batch_id=data['batch_id'],
            session=data['session'],
            term=data['term'],
            promoted_by_id=data['promoted_by'],
            promotion_date=data['promotion_date'],
            from_class_id=data['from_class_id'],
            to_class_id=data['to_class_id'],
        )


class PromotionRecordSerializer(serializers.ModelSerializer):
    previous_class = serializers.CharField(source='previous_class.name', read_only=True)
    new_class = serializers.CharField(source='new_class.name', read_only=True)

    class Meta:
        model = ac_models.PromotionRecord
        fields = (
            'id', 'batch', 'student', 'previous_class_id', 'previous_class', 'new_class_id', 'new_class',
            'session', 'term', 'promoted_by', 'promotion_date',
            'rolled_back', 'rollback_date', 'rolled_back_by',
        )
        read_only_fields = fields
